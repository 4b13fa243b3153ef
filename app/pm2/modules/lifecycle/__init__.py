"""
Lifecycle overview: artefacts per phase and the Initiating phase gate.
"""
