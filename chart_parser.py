import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Iterator, NamedTuple, Sequence

from nltk import Tree

from grammar import Grammar, NonTerminal, Rule, Symbol, Terminal

logger = logging.getLogger(__name__)

# (start, end) over input positions
Span = tuple[int, int]
# (predecessor edge index, completed child edge index or None for a scanned terminal)
Link = tuple[int, int | None]


class PrivilegedSymbolError(ValueError):
    pass


class InvalidTokenError(ValueError):
    def __init__(self, token: str, position: int) -> None:
        super().__init__(f"Input token {token!r} at position {position} not in grammar's terminals")
        self.token = token
        self.position = position


class DottedRule(NamedTuple):
    rule: Rule
    dot: int

    @property
    def is_complete(self) -> bool:
        return self.dot == len(self.rule.rhs)

    @property
    def next_symbol(self) -> Symbol | None:
        if self.is_complete:
            return None
        return self.rule.rhs[self.dot]

    def advance(self) -> 'DottedRule':
        return DottedRule(self.rule, self.dot + 1)

    def __str__(self) -> str:
        rhs = [str(s) for s in self.rule.rhs]
        rhs.insert(self.dot, "•")
        return f"{self.rule.lhs} -> " + " ".join(rhs)


@dataclass(eq=False)
class Edge:
    """
    A dotted rule anchored to an input span.

    ``history`` holds the chart indices of the completed child edges of the first derivation
    found for this edge. ``links`` records every distinct way the edge was built, as
    ``(predecessor, child)`` pairs, which together form a packed parse forest. Edges are
    identified by ``(d_rule, span)`` only.
    """

    d_rule: DottedRule
    span: Span
    history: list[int] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)

    @property
    def key(self) -> tuple[DottedRule, Span]:
        return self.d_rule, self.span

    @property
    def rule(self) -> Rule:
        return self.d_rule.rule

    @property
    def dot(self) -> int:
        return self.d_rule.dot

    @property
    def start(self) -> int:
        return self.span[0]

    @property
    def end(self) -> int:
        return self.span[1]

    @property
    def is_complete(self) -> bool:
        return self.d_rule.is_complete

    @property
    def next_symbol(self) -> Symbol | None:
        return self.d_rule.next_symbol

    def add_link(self, link: Link) -> None:
        if link not in self.links:
            self.links.append(link)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Edge):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.d_rule} {list(self.span)}"


class Chart:
    """
    Append-only store of edges. An edge's position is its permanent id, used by the history
    and links of later edges. Edges are indexed by identity, by the symbol they wait for and
    by completion, so the parser phases never need to scan the whole chart for partners.
    """

    def __init__(self) -> None:
        self._edges: list[Edge] = []
        self._index: dict[tuple[DottedRule, Span], int] = {}
        self._waiting: dict[tuple[Symbol, int], list[int]] = defaultdict(list)
        self._completed: list[int] = []

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[Edge]:
        return iter(self._edges)

    def __getitem__(self, index: int) -> Edge:
        return self._edges[index]

    def __contains__(self, edge: Edge) -> bool:
        return edge.key in self._index

    def index_of(self, key: tuple[DottedRule, Span]) -> int | None:
        """
        Looks up an edge by identity.

        :param key: The edge's ``(dotted rule, span)``.
        :return: The chart index of the edge, or None if it is not in the chart.
        """

        return self._index.get(key)

    def add(self, edge: Edge) -> int:
        """
        Appends an edge and indexes it.

        :param edge: An edge whose identity is not yet in the chart.
        :return: The new edge's chart index.
        :raises ValueError: If an edge with the same identity is already present.
        """

        if edge.key in self._index:
            raise ValueError(f"Edge already in chart: {edge}")
        index = len(self._edges)
        self._edges.append(edge)
        self._index[edge.key] = index
        if edge.is_complete:
            self._completed.append(index)
        else:
            self._waiting[(edge.next_symbol, edge.end)].append(index)
        return index

    def completed(self) -> list[int]:
        """Returns the indices of the completed edges, in chart order."""
        return list(self._completed)

    def waiting_for(self, symbol: Symbol, position: int) -> list[int]:
        """
        :param symbol: The symbol right after the dot.
        :param position: The right end of the edge's span.
        :return: The indices of the incomplete edges waiting for ``symbol`` at ``position``.
        """

        return list(self._waiting.get((symbol, position), ()))


class ChartParser:
    """
    Earley-style chart parser over a ``Grammar``.

    Privileged non-terminals (typically part-of-speech tags) are never expanded by the
    predict phase; the scan phase realizes them directly from the next input token using the
    grammar's terminal rules, which keeps the chart free of one lexical edge per rule.

    :param grammar: The grammar to parse with. It is only read, never changed.
    :param privileged: Non-terminals of ``grammar`` whose prediction is suppressed.
    :raises PrivilegedSymbolError: If a privileged symbol is not a non-terminal of the grammar.
    :raises MissingStartRuleError: If the grammar has no rule for its start symbol.
    """

    def __init__(self, grammar: Grammar, privileged: Iterable[NonTerminal] = ()) -> None:
        privileged = frozenset(privileged)
        for symbol in privileged:
            if not grammar.is_non_terminal(symbol):
                raise PrivilegedSymbolError(
                    f"Privileged symbol {symbol!r} not in the set of non-terminals")

        self._grammar = grammar
        self._privileged = privileged
        self._starting_rule = grammar.starting_rule()
        self._input: tuple[Terminal, ...] = ()
        self._chart = self._seed()

    @property
    def grammar(self) -> Grammar:
        return self._grammar

    @property
    def privileged(self) -> frozenset[NonTerminal]:
        return self._privileged

    @property
    def chart(self) -> Chart:
        return self._chart

    @property
    def input(self) -> tuple[Terminal, ...]:
        return self._input

    def _seed(self) -> Chart:
        chart = Chart()
        chart.add(Edge(DottedRule(self._starting_rule, 0), (0, 0)))
        return chart

    def reset(self, tokens: Sequence[str]) -> None:
        """
        Validates ``tokens`` and starts a fresh chart for them.

        :raises InvalidTokenError: If a token is not one of the grammar's terminals. The
            chart is left untouched in that case.
        """

        terminals = []
        for position, token in enumerate(tokens):
            terminal = Terminal(token)
            if not self._grammar.is_terminal(terminal):
                raise InvalidTokenError(token, position)
            terminals.append(terminal)

        self._input = tuple(terminals)
        self._chart = self._seed()

    def parse(self, tokens: Sequence[str], exhaustive: bool = False) -> list[Edge]:
        """
        Parses ``tokens`` and returns the accepting edges.

        Rounds of predict, scan and complete run until the starting rule is completed over
        the whole input. If a full round adds no edge the chart is at its fixpoint and the
        input has no derivation; an empty list is returned.

        :param tokens: The input, one terminal name per token.
        :param exhaustive: Keep running rounds after acceptance until the fixpoint, so that
            the forest holds every derivation of the accepting edge.
        :return: The accepting edges (empty if there is no derivation).
        :raises InvalidTokenError: If a token is not a terminal of the grammar.
        """

        self.reset(tokens)

        rounds = 0
        while True:
            size = len(self._chart)
            rounds += 1
            predicted = self.predict()
            scanned = self.scan()
            completed = self.complete()
            logger.debug("Round %d: predict +%d, scan +%d, complete +%d (%d edges)",
                         rounds, predicted, scanned, completed, len(self._chart))

            accepted = self.accepting_edges()
            if accepted and not exhaustive:
                break
            if len(self._chart) == size:
                break

        if accepted:
            logger.info("Accepted %d tokens after %d rounds (%d edges)",
                        len(self._input), rounds, len(self._chart))
        else:
            logger.info("No derivation found for %d tokens after %d rounds (%d edges)",
                        len(self._input), rounds, len(self._chart))
        return accepted

    def accepting_edges(self) -> list[Edge]:
        """
        :return: The edges completing the starting rule over the whole current input (at most one).
        """

        done = DottedRule(self._starting_rule, len(self._starting_rule.rhs))
        index = self._chart.index_of((done, (0, len(self._input))))
        if index is None:
            return []
        return [self._chart[index]]

    def _propose(self, pending: dict, edge: Edge, link: Link | None = None) -> None:
        index = self._chart.index_of(edge.key)
        if index is not None:
            if link is not None:
                self._chart[index].add_link(link)
            return
        edge = pending.setdefault(edge.key, edge)
        if link is not None:
            edge.add_link(link)

    def _commit(self, pending: dict) -> int:
        for edge in pending.values():
            self._chart.add(edge)
        return len(pending)

    def predict(self) -> int:
        """Adds a zero-width edge for every rule of each non-privileged non-terminal after a dot."""
        pending = {}
        for edge in self._chart:
            symbol = edge.next_symbol
            if not isinstance(symbol, NonTerminal) or symbol in self._privileged:
                continue
            for rule in self._grammar.rules_for(symbol):
                self._propose(pending, Edge(DottedRule(rule, 0), (edge.end, edge.end)))
        return self._commit(pending)

    def scan(self) -> int:
        """
        Consumes the next input token for every edge that can take it. A privileged symbol
        after the dot is realized as its terminal rule over the token; a matching terminal
        after the dot moves the dot over it.
        """

        pending = {}
        for index, edge in enumerate(self._chart):
            symbol = edge.next_symbol
            if symbol is None or edge.end >= len(self._input):
                continue
            token = self._input[edge.end]

            if symbol in self._privileged:
                rule = self._grammar.terminal_rule_for(symbol, token)
                if rule is not None:
                    self._propose(pending, Edge(DottedRule(rule, 1), (edge.end, edge.end + 1)))

            if symbol == token:
                shifted = Edge(edge.d_rule.advance(), (edge.start, edge.end + 1), list(edge.history))
                self._propose(pending, shifted, link=(index, None))
        return self._commit(pending)

    def complete(self) -> int:
        """
        Moves the dot of every edge waiting for a completed constituent that starts where the
        waiting edge ends. Passes repeat until one adds nothing.
        """

        added = 0
        while True:
            pending = {}
            for a_index in self._chart.completed():
                a = self._chart[a_index]
                for b_index in self._chart.waiting_for(a.rule.lhs, a.start):
                    b = self._chart[b_index]
                    edge = Edge(b.d_rule.advance(), (b.start, a.end), b.history + [a_index])
                    self._propose(pending, edge, link=(b_index, a_index))
            if not pending:
                return added
            added += self._commit(pending)

    def reconstruct(self, edge: Edge) -> list[Rule]:
        """
        Returns the rules of the primary derivation of ``edge``, parents before children.
        Children are taken off a stack, so siblings come out last to first.
        """

        trace = []
        stack = [edge]
        while stack:
            edge = stack.pop()
            trace.append(edge.rule)
            stack.extend(self._chart[i] for i in edge.history)
        return trace

    def _make_tree(self, edge: Edge, history: Sequence[int], subtrees: Sequence[Tree]) -> Tree:
        children = []
        parts = iter(zip(history, subtrees))
        position = edge.start
        for symbol in edge.rule.rhs[:edge.dot]:
            if isinstance(symbol, Terminal):
                children.append(self._input[position].name)
                position += 1
            else:
                index, subtree = next(parts)
                children.append(subtree)
                position = self._chart[index].end
        return Tree(edge.rule.lhs.name, children)

    def to_tree(self, edge: Edge) -> Tree:
        """Builds the primary derivation of ``edge`` as an ``nltk.Tree`` with tokens as leaves."""
        subtrees = [self.to_tree(self._chart[i]) for i in edge.history]
        return self._make_tree(edge, edge.history, subtrees)

    def extract_trees(self, edge: Edge) -> tuple[int, Iterator[Tree]]:
        """
        Returns (count, generator) where:
          - count is the number of derivations of ``edge`` in the packed forest
          - generator yields them lazily as ``nltk.Tree``s

        Derivations that would re-enter an edge already being expanded (unit-rule cycles)
        are skipped, so the count stays finite.
        """

        index = self._chart.index_of(edge.key)
        if index is None:
            raise ValueError(f"Edge is not in the chart: {edge}")
        return self._count(index, {}, frozenset()), self._trees(index, frozenset())

    def _count(self, index: int, memo: dict, active: frozenset[int]) -> int:
        """
        Counts the trees ``_trees`` yields for the edge at ``index``.

        :param index: The chart index of the edge.
        :param memo: Counts already known, keyed by (index, active edges).
        :param active: The edges being expanded above this one.
        :return: The number of derivations.
        """

        return self._count_partials(index, memo, active | {index})

    def _count_partials(self, index: int, memo: dict, active: frozenset[int]) -> int:
        # mirrors _partials; the skipped links depend on ``active``, so it is part of the key
        key = (index, active)
        if key in memo:
            return memo[key]
        edge = self._chart[index]
        if not edge.links:
            return 1

        total = 0
        for predecessor, child in edge.links:
            if child in active:
                continue
            count = self._count_partials(predecessor, memo, active)
            if child is not None:
                count *= self._count(child, memo, active)
            total += count
        memo[key] = total
        return total

    def _partials(self, index: int, active: frozenset[int]) -> Iterator[list[tuple[int, Tree]]]:
        # each yielded list pairs a child edge index with one of its subtrees
        edge = self._chart[index]
        if not edge.links:
            yield []
            return
        for predecessor, child in edge.links:
            if child in active:
                continue
            for prefix in self._partials(predecessor, active):
                if child is None:
                    yield prefix
                    continue
                for subtree in self._trees(child, active):
                    yield prefix + [(child, subtree)]

    def _trees(self, index: int, active: frozenset[int]) -> Iterator[Tree]:
        active = active | {index}
        edge = self._chart[index]
        for parts in self._partials(index, active):
            history = [i for i, _ in parts]
            subtrees = [t for _, t in parts]
            yield self._make_tree(edge, history, subtrees)
