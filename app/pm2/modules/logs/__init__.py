"""
Project logs module (Risks, Assumptions, Issues, Dependencies).

Each log is a JSON array under data/logs/<Type>.json; entries are addressed
by their position in the file.
"""
