"""auth/ -- Authentication and access-control package for MarketBoard.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, core/, or market/.
api/ imports from auth/, not the other way around.
"""
