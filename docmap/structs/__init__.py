"""
All the structures of the documents, and the computations over them.

Grouped by the purpose: the dotted paths, the schemas, the tracked containers,
the documents, the deltas (with their codecs, divergence checks, and versioning),
and the reassembly of the populated references.

All the functions are purely data-manipulative and computational.
No external calls or any i/o activities are done here.
"""
