"""
All the routines to talk to the store.

The models only need the `Transport` protocol: insert, update, and find.
This package is supposed to be mocked when only the high-level logic of
the models has to be tested, not the requests themselves.

Beware: this is NOT a generic client of the store. It is a set of dedicated
adapters specially tailored to do the library-specific tasks only.
"""
