"""
Initial Stakeholder Identification activity (Initiating phase).
"""
