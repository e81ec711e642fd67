import argparse
import sys

from nltk import Tree

import data.data as data
from chart_parser import ChartParser, InvalidTokenError
from rule_parser import grammar_from_rules


def lexical_rules(sentence: list[str], pos_tags: list[str]) -> str:
    """
    Builds one terminal rule ``TAG -> "word"`` per word of a tagged sentence.

    :param sentence: The words of the sentence.
    :param pos_tags: One part-of-speech tag per word.
    :return: The rules, one per line, without duplicates.
    :raises ValueError: If the sentence and the tags differ in length.
    """

    if len(sentence) != len(pos_tags):
        raise ValueError("Please ensure same length for sentence and pos_tags.")
    rule_set = {}
    for word, tag in zip(sentence, pos_tags):
        quoted = word.replace('\\', '\\\\').replace('"', '\\"')
        rule_set[f'{tag} -> "{quoted}"'] = None
    return '\n'.join(rule_set)


def format_tree(tree: Tree) -> str:
    """Formats a tree on one line in bracket notation, e.g. ``[S [NP [N they]] [VP [V fish]]]``."""
    return tree.pformat(margin=sys.maxsize, parens='[]')


def format_trace(rules: list) -> str:
    """
    Formats a derivation trace, one indented rule per line.

    :param rules: The rules of the trace, in the order they were emitted.
    :return: The formatted trace.
    """

    return '\n'.join(f"  {rule}" for rule in rules)


def display_parses(parse_trees: list[Tree], pretty_print: bool = True, draw: bool = True) -> None:
    """
    Displays parse trees in bracket notation, optionally pretty-printing them in text form
    and allowing interactive visualization as images.

    Users are prompted interactively if they want to view specific parses as graphical images.

    :param parse_trees: The parse trees to show.
    :param pretty_print: Boolean flag indicating whether to pretty-print the trees in text form. Defaults to True.
    :param draw: Boolean flag indicating whether to enable interactive image visualization of the trees. Defaults to True.
    :return: None.
    """

    for i, tree in enumerate(parse_trees, 1):
        print(f"\nParse {i}:")
        print(format_tree(tree))

        if pretty_print:
            print()
            tree.pretty_print()

    if not parse_trees:
        print("No successful parses.")
        return

    while draw:
        choice = input(
            f"\nEnter the number of a parse to view as an image (1-{len(parse_trees)}), or 'no' to stop: "
        ).strip().lower()

        if choice == "no":
            break
        if choice.isdigit():
            idx = int(choice)
            if 1 <= idx <= len(parse_trees):
                parse_trees[idx - 1].draw()
            else:
                print("Invalid number.")
        else:
            print("Please enter a valid number or 'no'.")


def main(demo: bool = False, display: bool = True, pretty_print: bool = True, draw: bool = True,
         rules: str = None, sentence_list: list = None, pos_tags_list: list = None,
         start: str = None, max_trees: int = 50, trace: bool = False) -> list[list[str]]:
    """
    Parses sentences with a context-free grammar using the chart parser and extracts their
    parse trees. The grammar's lexical categories are handed to the parser as privileged
    symbols, so they are realized straight from the input words.

    :param demo: If True, prompts the user to provide a sentence and its corresponding
        part-of-speech (POS) tags. Defaults to False.
    :param display: If True, displays the parse trees in bracket notation and optionally
        allows users to view them interactively. Defaults to True.
    :param pretty_print: If True, prints each tree as text art. Defaults to True.
    :param draw: If True, offers graphical visualizations of the parsed trees. Defaults to True.
    :param rules: An optional string containing the grammar rules. Defaults to the demo rules.
    :param sentence_list: An optional list of sentences to parse. A leading '*' marks a
        sentence expected to be ungrammatical. Defaults to the demo sentences.
    :param pos_tags_list: An optional list of POS tag strings, one per sentence. Blank
        entries add no lexical rules. Defaults to the demo tags.
    :param start: The start symbol. Defaults to the left side of the first rule.
    :param max_trees: The most trees extracted per sentence. Defaults to 50.
    :param trace: If True, prints the rule trace of the first derivation of each sentence.
    :return: The bracketed parses of every sentence, in order.
    """

    rules = data.rules if rules is None else rules

    if demo:
        sentence_list = [input("Enter a sentence: ")]
        pos_tags_list = [input("Enter POS tags: ")]
        print()
    else:
        sentence_list = data.sentence_list if sentence_list is None else sentence_list
        pos_tags_list = data.pos_tags_list if pos_tags_list is None else pos_tags_list

    if len(sentence_list) != len(pos_tags_list):
        raise ValueError("Please ensure same number of sentences and POS tags.")

    noun = "sentence" if len(sentence_list) == 1 else "sentences"
    print(f"Parsing {len(sentence_list)} {noun}:")

    parse_list: list[list[str]] = []

    for idx, (sentence, pos_tags) in enumerate(zip(sentence_list, pos_tags_list)):
        print()
        if sentence.startswith("*"):
            grammatical = False
            sentence = sentence[1:]
        else:
            grammatical = True
        print(f"Parsing ({'' if grammatical else 'un'}grammatical) sentence number {idx + 1}: {sentence}")

        sentence = sentence.split()
        pos_tags = pos_tags.upper().split()
        new_rules = rules
        if pos_tags:
            new_rules += '\n' + lexical_rules(sentence, pos_tags)

        grammar = grammar_from_rules(new_rules, start=start)
        print("Grammar created successfully.")

        parser = ChartParser(grammar, grammar.preterminals())
        try:
            accepted = parser.parse(sentence, exhaustive=True)
        except InvalidTokenError as e:
            print(f"Sentence rejected: {e}")
            if grammatical:
                print("THIS IS NOT EXPECTED.")
            parse_list.append([])
            continue
        print(f"Chart parsing completed successfully ({len(parser.chart)} edges).")

        count = 0
        trees: list[Tree] = []
        for edge in accepted:
            edge_count, gen = parser.extract_trees(edge)
            count += edge_count
            for tree in gen:
                if len(trees) >= max_trees:
                    break
                trees.append(tree)
            if trace:
                print("Derivation trace:")
                print(format_trace(parser.reconstruct(edge)))

        print("Parse extraction completed successfully.")
        if count > max_trees:
            print(f"{count} trees found. There is no way I'm showing that... "
                  f"Here are the first {max_trees} instead.")

        print(f"Found {count} parse(s):")
        expected = (grammatical and len(trees) > 0) or (not grammatical and len(trees) == 0)
        if not expected:
            print("THIS IS NOT EXPECTED.")

        parse_list.append([format_tree(t) for t in trees])

        if display:
            display_parses(trees, pretty_print=pretty_print, draw=draw)

    return parse_list


def cli(argv: list[str] | None = None) -> int:
    """
    Command line entry point.

    :param argv: The arguments, without the program name. Defaults to ``sys.argv[1:]``.
    :return: The exit status: 0 on success, 1 if the grammar or the rules file could not be used.
    """

    parser = argparse.ArgumentParser(
        prog="tree-generator",
        description=(
            "Parse sentences with a context-free grammar using a chart parser and print their "
            "syntax trees. Without a sentence, runs the bundled demo sentences."
        ),
    )
    parser.add_argument("sentence", nargs="*", help="Space-separated words of the sentence to parse.")
    parser.add_argument("--tags", default="", help="POS tags for the sentence, one per word.")
    parser.add_argument("--rules", metavar="FILE", help="Read the grammar rules from FILE.")
    parser.add_argument("--start", help="Start symbol (default: left side of the first rule).")
    parser.add_argument("--max-trees", type=int, default=50, help="Most trees shown per sentence.")
    parser.add_argument("--trace", action="store_true", help="Print the rule trace of each parse.")
    parser.add_argument("--no-display", action="store_true", help="Do not print the trees.")
    parser.add_argument("--no-pretty", action="store_true", help="Do not pretty-print the trees.")
    parser.add_argument("--draw", action="store_true", help="Offer to draw the trees in a window.")
    args = parser.parse_args(argv)

    sentence_list = pos_tags_list = None
    if args.sentence:
        sentence_list = [" ".join(args.sentence)]
        pos_tags_list = [args.tags]

    try:
        rules = None
        if args.rules:
            with open(args.rules, encoding="utf-8") as f:
                rules = f.read()
        main(display=not args.no_display, pretty_print=not args.no_pretty, draw=args.draw,
             rules=rules, sentence_list=sentence_list, pos_tags_list=pos_tags_list,
             start=args.start, max_trees=args.max_trees, trace=args.trace)
    except (ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(cli())
