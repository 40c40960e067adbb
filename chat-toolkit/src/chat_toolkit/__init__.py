"""
Chat toolkit: conversation storage, message orchestration and the REST surface
around a single-call AI responder.
"""
