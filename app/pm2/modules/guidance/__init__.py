"""
PM² guidance content tooling.

Guidance pages are JSON documents holding markdown converted from the PM²
guide, either a single "markdown" string or a list of "sections". These
helpers repair conversion artifacts (ASCII tables, attribute blocks, quote
markers, figure references).
"""
