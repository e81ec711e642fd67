# Phrase structure rules. Quoted words are terminals; parentheses mark optional groups.
rules = """
S -> NP VP
NP -> N (PP)
PP -> P NP
VP -> VP PP | V VP | V NP | V

# Lexicon
N -> "can" | "fish" | "rivers" | "they" | "December"
P -> "in"
V -> "can" | "fish"
"""

# A leading '*' marks a sentence the grammar should reject.
sentence_list = [
    "they can fish in rivers in December",
    "they fish",
    "they can fish",
    "they eat fish in December",
    "*in they",
    "*they in",
]

# POS tags add lexical rules for the words of the matching sentence; leave blank to rely on the lexicon.
pos_tags_list = [
    "",
    "",
    "",
    "N V N P N",
    "",
    "",
]
