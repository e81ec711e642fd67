import pytest

import data.data as data
import tree_generator
from tree_generator import cli, format_tree, lexical_rules, main


def test_lexical_rules():
    assert lexical_rules(["they", "fish", "they"], ["N", "V", "N"]) == 'N -> "they"\nV -> "fish"'
    assert lexical_rules(['say"'], ["N"]) == 'N -> "say\\""'
    with pytest.raises(ValueError):
        lexical_rules(["they", "fish"], ["N"])


def test_main_demo_data(capsys):
    parse_list = main(display=False)
    assert len(parse_list) == len(data.sentence_list)
    for sentence, parses in zip(data.sentence_list, parse_list):
        if sentence.startswith("*"):
            assert parses == []
        else:
            assert parses
    assert parse_list[1] == ["[S [NP [N they]] [VP [V fish]]]"]
    assert "THIS IS NOT EXPECTED." not in capsys.readouterr().out


def test_main_with_pos_tags():
    [parses] = main(display=False, sentence_list=["they eat fish"], pos_tags_list=["n v n"])
    assert sorted(parses) == [
        "[S [NP [N they]] [VP [V eat] [NP [N fish]]]]",
        "[S [NP [N they]] [VP [V eat] [VP [V fish]]]]",
    ]


def test_main_max_trees(capsys):
    [parses] = main(display=False, sentence_list=["they can fish in rivers in December"],
                    pos_tags_list=[""], max_trees=1)
    assert len(parses) == 1
    assert "Here are the first 1 instead." in capsys.readouterr().out


def test_main_trace(capsys):
    main(display=False, sentence_list=["they fish"], pos_tags_list=[""], trace=True)
    out = capsys.readouterr().out
    assert "Derivation trace:" in out
    assert '  V -> "fish"' in out


def test_main_mismatched_inputs():
    with pytest.raises(ValueError):
        main(display=False, sentence_list=["they fish"], pos_tags_list=[])


def test_display_parses(capsys):
    tree_generator.display_parses([], pretty_print=False, draw=False)
    assert "No successful parses." in capsys.readouterr().out


def test_format_tree():
    from nltk import Tree
    assert format_tree(Tree.fromstring("(S (NP (N they)) (VP (V fish)))")) == "[S [NP [N they]] [VP [V fish]]]"


def test_cli(capsys):
    assert cli(["they", "fish", "--no-pretty"]) == 0
    assert "[S [NP [N they]] [VP [V fish]]]" in capsys.readouterr().out


def test_cli_rules_file(tmp_path, capsys):
    rules = tmp_path / "rules.txt"
    rules.write_text('S -> A B\nA -> "a"\nB -> "b"\n', encoding="utf-8")
    assert cli(["a", "b", "--rules", str(rules), "--no-pretty"]) == 0
    assert "[S [A a] [B b]]" in capsys.readouterr().out


def test_cli_invalid_token(capsys):
    assert cli(["they", "swim", "--no-display"]) == 0
    out = capsys.readouterr().out
    assert "Sentence rejected" in out
    assert "swim" in out


def test_cli_missing_rules_file(tmp_path, capsys):
    assert cli(["a", "--rules", str(tmp_path / "missing.txt")]) == 1
    assert "missing.txt" in capsys.readouterr().err


def test_main_continues_after_invalid_token(capsys):
    parse_list = main(display=False, sentence_list=["they swim", "*swim they", "they fish"],
                      pos_tags_list=["", "", ""])
    assert parse_list == [[], [], ["[S [NP [N they]] [VP [V fish]]]"]]
    out = capsys.readouterr().out
    assert out.count("Sentence rejected") == 2
    assert out.count("THIS IS NOT EXPECTED.") == 1
