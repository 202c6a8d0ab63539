"""Database layer: engine, declarative base, column types, persistence guards."""
