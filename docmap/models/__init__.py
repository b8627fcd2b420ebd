"""
The models (the classes of the documents) and their registries.

This is where the pure computations of `docmap.structs` meet the store:
the models save the documents' deltas via the transports, load the documents,
and populate their references.
"""
