"""auth/ -- Authentication and authorization package for the Padrón API.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, registry/ or audit/.
api/ imports from auth/, not the other way around.
"""
