from grammar import Grammar, NonTerminal, Rule, Symbol, Terminal

# Node type: either a grammar symbol, or a tuple ('GROUP', optional:bool, children:list[node])
Node = Symbol | tuple[str, bool, list['Node']]  # ('GROUP', optional, children)


def split_top_level(s: str, sep: str = '|') -> list[str]:
    """
    Splits a string at the top level based on a given separator, while preserving the nested structures
    within parentheses. Separators inside parentheses are not treated as delimiter points.

    :param s: The input string to be split.
    :param sep: The separator used to delimit the top-level split points in the string. Defaults to '|'.
    :return: A list of strings split at the top level by the separator.
    :raises ValueError: If there are unmatched opening or closing parentheses in the input string.
    """

    parts = []
    buf = []
    level = 0
    in_quote = False
    esc = False
    for ch in s:
        if esc:
            esc = False
            buf.append(ch)
        elif in_quote and ch == '\\':
            esc = True
            buf.append(ch)
        elif ch == '"':
            in_quote = not in_quote
            buf.append(ch)
        elif in_quote:
            buf.append(ch)
        elif ch == '(':
            level += 1
            buf.append(ch)
        elif ch == ')':
            level -= 1
            if level < 0:
                raise ValueError("Unmatched closing parenthesis in RHS: " + s)
            buf.append(ch)
        elif ch == sep and level == 0:
            parts.append(''.join(buf).strip())
            buf = []
        else:
            buf.append(ch)
    if level != 0:
        raise ValueError("Unmatched opening parenthesis in RHS: " + s)
    parts.append(''.join(buf).strip())

    return parts


def tokenize_alternative(s: str) -> list[Node]:
    """
    Parses one alternative of a rule's right-hand side into a list of nodes. Quoted text becomes
    a ``Terminal``, a bare word becomes a ``NonTerminal`` and a parenthesized group becomes an
    optional ``('GROUP', True, children)`` node whose children are tokenized recursively.

    :param s: The alternative, e.g. ``Det (Adj) N "s"``.
    :return: The nodes of the alternative, in order.
    :raises ValueError: If the input contains unmatched parentheses, empty groups,
        unterminated quoted strings, or unexpected characters.
    """

    tokens: list[Node] = []
    i = 0
    n = len(s)
    while i < n:
        # skip whitespace
        if s[i].isspace():
            i += 1
            continue
        ch = s[i]
        if ch == '(':
            start = i + 1
            level = 1
            i = start
            while i < n and level > 0:
                if s[i] == '(':
                    level += 1
                elif s[i] == ')':
                    level -= 1
                i += 1
            if level != 0:
                raise ValueError(f"Unmatched '(' in alternative: {s}")
            inner = s[start:i - 1].strip()
            if inner == '':
                raise ValueError("Empty parentheses group are not allowed: '()'")
            tokens.append(('GROUP', True, tokenize_alternative(inner)))
        elif ch == '"':
            j = i + 1
            esc = False
            buf = []
            while j < n:
                if esc:
                    buf.append(s[j])
                    esc = False
                elif s[j] == '\\':
                    esc = True
                elif s[j] == '"':
                    break
                else:
                    buf.append(s[j])
                j += 1
            if j >= n or s[j] != '"':
                raise ValueError(f"Unterminated quote in alternative: {s[i:]}")
            tokens.append(Terminal(''.join(buf)))
            i = j + 1
        else:
            j = i
            while j < n and (not s[j].isspace()) and s[j] not in '()|"':
                j += 1
            if j == i:
                raise ValueError(f"Unexpected character at position {i} in: {s}")
            tokens.append(NonTerminal(s[i:j]))
            i = j

    return tokens


def expand_nodes(nodes: list[Node]) -> list[list[Symbol]]:
    """
    Expands a list of nodes into every symbol sequence it stands for: an optional group is
    either left out or replaced by each expansion of its children. Empty sequences are dropped
    and duplicates removed while preserving order.

    :param nodes: A list containing symbols or ('GROUP', optional, children) tuples.
    :return: The distinct, non-empty symbol sequences.
    :raises ValueError: If the expansion results in more than 10,000 sequences for one
                        alternative or if every expansion is empty.
    """

    results: list[list[Symbol]] = [[]]

    for node in nodes:
        if isinstance(node, (NonTerminal, Terminal)):
            results = [seq + [node] for seq in results]
        else:
            tag, optional, children = node
            assert tag == 'GROUP'
            included = expand_nodes(children)
            new_results = []
            if optional:
                new_results.extend(list(seq) for seq in results)
            for seq in results:
                for inc in included:
                    new_results.append(seq + inc)
            results = new_results

        if len(results) > 10000:
            raise ValueError("Expansion exploded: more than 10,000 expansions for one alternative. "
                             "Refuse to expand; consider simplifying grammar.")

    filtered = [r for r in results if len(r) > 0]
    if not filtered:
        raise ValueError("An alternative expanded to only empty productions (epsilon), which are not supported.")
    unique = list(dict.fromkeys(tuple(seq) for seq in filtered))

    return [list(seq) for seq in unique]


def parse_rules(rules_string: str) -> dict[NonTerminal, list[list[Symbol]]]:
    """
    Parses a string of phrase structure rules into a dictionary mapping each left-hand side to
    its alternatives.

    Lines that are empty or start with '#' are ignored. Every other line must read
    ``LHS -> RHS``, where RHS holds one or more alternatives separated by '|'. Quoted words
    are terminals, bare words are non-terminals and parentheses mark optional groups.

    :param rules_string: The rules, one per line.
    :return: A dictionary from non-terminal to its right-hand sides, in order of appearance.
    :raises ValueError: If a rule is malformed, such as missing a '->', having an empty LHS, or
        any RHS alternative that is empty.
    """

    grammar: dict[NonTerminal, list[list[Symbol]]] = {}
    for line_idx, raw in enumerate(rules_string.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        if '->' not in line:
            raise ValueError(f"Line {line_idx}: missing '->' in rule: {line}")
        lhs_part, rhs_part = line.split('->', 1)
        lhs = lhs_part.strip()
        if lhs == '' or any(c.isspace() or c in '()|"' for c in lhs):
            raise ValueError(f"Line {line_idx}: invalid LHS in rule: {line}")
        for alt in split_top_level(rhs_part.strip(), sep='|'):
            if alt == '':
                raise ValueError(f"Line {line_idx}: empty RHS alternative in rule: {line}")
            try:
                expansions = expand_nodes(tokenize_alternative(alt))
            except ValueError as e:
                raise ValueError(f"Line {line_idx}: {e}") from e
            grammar.setdefault(NonTerminal(lhs), []).extend(expansions)

    return grammar


def grammar_from_rules(rules_string: str, start: str | None = None) -> Grammar:
    """
    Builds a ``Grammar`` from rule text (see ``parse_rules``). Terminals are the quoted symbols,
    non-terminals are every bare symbol. The start symbol defaults to the left-hand side of the
    first rule.

    :raises ValueError: If the text is malformed or holds no rules.
    :raises GrammarError: If the resulting grammar is invalid, e.g. an unknown start symbol.
    """

    productions = parse_rules(rules_string)
    if not productions:
        raise ValueError("No rules found in grammar text")

    non_terminals = set(productions)
    terminals = set()
    rules = []
    for lhs, alternatives in productions.items():
        for rhs in alternatives:
            rules.append(Rule(lhs, tuple(rhs)))
            for symbol in rhs:
                if isinstance(symbol, Terminal):
                    terminals.add(symbol)
                else:
                    non_terminals.add(symbol)

    start_symbol = NonTerminal(start) if start is not None else next(iter(productions))
    return Grammar(non_terminals, terminals, start_symbol, rules)
