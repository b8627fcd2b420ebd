"""
Engines are things that run around the models to help them function,
but are not part of them: e.g. the per-document logging.
"""
