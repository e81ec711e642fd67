from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, NamedTuple

if TYPE_CHECKING:
    from chart_parser import ChartParser


class GrammarError(ValueError):
    pass


class MissingStartRuleError(GrammarError):
    pass


@dataclass(frozen=True)
class NonTerminal:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Terminal:
    name: str

    def __str__(self) -> str:
        return f'"{self.name}"'


Symbol = NonTerminal | Terminal


class Rule(NamedTuple):
    """A production: ``lhs`` derives the symbols of ``rhs`` in order."""

    lhs: NonTerminal
    rhs: tuple[Symbol, ...]

    def __str__(self) -> str:
        return f"{self.lhs} -> " + " ".join(str(s) for s in self.rhs)


def non_terminal_set(names: Iterable[str]) -> frozenset[NonTerminal]:
    return frozenset(NonTerminal(name) for name in names)


def terminal_set(names: Iterable[str]) -> frozenset[Terminal]:
    return frozenset(Terminal(name) for name in names)


class Grammar:
    """
    An immutable, validated context-free grammar.

    The grammar owns its symbol sets, its start symbol and an ordered collection of rules.
    Rules are kept in the order they were supplied (duplicates dropped), so the "first"
    rule for a symbol is well defined. All lookups hand out the shared ``Rule`` tuples;
    nothing in a rule refers back to the grammar.

    :param non_terminals: The declared non-terminal symbols.
    :param terminals: The declared terminal symbols.
    :param start: The start symbol; must be one of ``non_terminals``.
    :param rules: The production rules.
    :raises GrammarError: If the start symbol is not a declared non-terminal, if a rule's
        left side is not a declared non-terminal, or if a right-hand symbol is undeclared.
    """

    def __init__(self,
                 non_terminals: Iterable[NonTerminal],
                 terminals: Iterable[Terminal],
                 start: NonTerminal,
                 rules: Iterable[Rule]) -> None:
        non_terminals = frozenset(non_terminals)
        terminals = frozenset(terminals)
        rules = tuple(dict.fromkeys(Rule(lhs, tuple(rhs)) for lhs, rhs in rules))

        for symbol in non_terminals:
            if not isinstance(symbol, NonTerminal):
                raise GrammarError(f"Non-terminal set contains {symbol!r}")
        for symbol in terminals:
            if not isinstance(symbol, Terminal):
                raise GrammarError(f"Terminal set contains {symbol!r}")
        if start not in non_terminals:
            raise GrammarError(f"Starting symbol {start!r} not in the set of non-terminals")
        for rule in rules:
            if rule.lhs not in non_terminals:
                raise GrammarError(f"Left side of rule is not a non-terminal: {rule}")
            for symbol in rule.rhs:
                if symbol not in non_terminals and symbol not in terminals:
                    raise GrammarError(f"Symbol {symbol} on right side of rule is neither "
                                       f"a terminal, nor a non-terminal: {rule}")

        self._non_terminals = non_terminals
        self._terminals = terminals
        self._start = start
        self._rules = rules

        self._rules_by_lhs: dict[NonTerminal, list[Rule]] = defaultdict(list)
        self._terminal_rules: dict[tuple[NonTerminal, Terminal], Rule] = {}
        for rule in rules:
            self._rules_by_lhs[rule.lhs].append(rule)
            if len(rule.rhs) == 1 and isinstance(rule.rhs[0], Terminal):
                self._terminal_rules.setdefault((rule.lhs, rule.rhs[0]), rule)

    @property
    def non_terminals(self) -> frozenset[NonTerminal]:
        return self._non_terminals

    @property
    def terminals(self) -> frozenset[Terminal]:
        return self._terminals

    @property
    def start(self) -> NonTerminal:
        return self._start

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def starting_rule(self) -> Rule:
        """
        Returns the first stored rule whose left side is the start symbol.

        :raises MissingStartRuleError: If no rule derives the start symbol.
        """

        rules = self._rules_by_lhs.get(self._start)
        if not rules:
            raise MissingStartRuleError(f"No rule reducing the starting symbol {self._start}")
        return rules[0]

    def rules_for(self, symbol: Symbol) -> tuple[Rule, ...]:
        """
        :param symbol: The left-hand side to look up.
        :return: Every rule headed by ``symbol``, in grammar order; empty if there are none.
        """

        return tuple(self._rules_by_lhs.get(symbol, ()))

    def is_terminal(self, symbol: Symbol) -> bool:
        """Returns True if ``symbol`` is a declared terminal."""
        return symbol in self._terminals

    def is_non_terminal(self, symbol: Symbol) -> bool:
        """Returns True if ``symbol`` is a declared non-terminal."""
        return symbol in self._non_terminals

    def terminal_rule_for(self, non_terminal: NonTerminal, terminal: Terminal) -> Rule | None:
        """Returns the rule ``non_terminal -> terminal`` if the grammar has one."""
        return self._terminal_rules.get((non_terminal, terminal))

    def preterminals(self) -> frozenset[NonTerminal]:
        """
        Returns the lexical categories of the grammar: the non-terminals that have at least
        one rule and whose every rule rewrites to a single terminal. These are the natural
        candidates for a parser's privileged set.
        """

        return frozenset(
            lhs for lhs, rules in self._rules_by_lhs.items()
            if all(len(r.rhs) == 1 and isinstance(r.rhs[0], Terminal) for r in rules)
        )

    def parser(self, privileged: Iterable[NonTerminal] = ()) -> 'ChartParser':
        """
        Creates a chart parser over this grammar.

        :param privileged: Non-terminals whose prediction the parser suppresses.
        :return: A new ``ChartParser``.
        :raises PrivilegedSymbolError: If a privileged symbol is not a non-terminal of the grammar.
        """

        from chart_parser import ChartParser

        return ChartParser(self, privileged)

    def __repr__(self) -> str:
        return (f"Grammar(start={self._start}, {len(self._non_terminals)} non-terminals, "
                f"{len(self._terminals)} terminals, {len(self._rules)} rules)")
