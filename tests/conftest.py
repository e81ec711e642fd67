import pytest

from grammar import Grammar, NonTerminal, Rule, Terminal, non_terminal_set, terminal_set

SENTENCE = ["they", "can", "fish", "in", "rivers", "in", "December"]


def rule(lhs, *rhs):
    return Rule(NonTerminal(lhs), tuple(rhs))


def canonical_rules():
    NP, VP, PP = NonTerminal("NP"), NonTerminal("VP"), NonTerminal("PP")
    N, V, P = NonTerminal("N"), NonTerminal("V"), NonTerminal("P")
    return [
        rule("S", NP, VP),
        rule("NP", N, PP),
        rule("NP", N),
        rule("PP", P, NP),
        rule("VP", VP, PP),
        rule("VP", V, VP),
        rule("VP", V, NP),
        rule("VP", V),
        rule("N", Terminal("can")),
        rule("N", Terminal("fish")),
        rule("N", Terminal("rivers")),
        rule("N", Terminal("they")),
        rule("N", Terminal("December")),
        rule("P", Terminal("in")),
        rule("V", Terminal("can")),
        rule("V", Terminal("fish")),
    ]


@pytest.fixture
def grammar():
    return Grammar(
        non_terminal_set(["S", "NP", "VP", "PP", "N", "V", "P"]),
        terminal_set(["can", "fish", "rivers", "they", "in", "December"]),
        NonTerminal("S"),
        canonical_rules(),
    )


@pytest.fixture
def privileged():
    return non_terminal_set(["N", "V", "P"])
