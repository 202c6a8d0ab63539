"""
wallet_services -- runtime wiring and operator entry points.

Sits above wallet_kernel and wallet_config: turns a configuration into an
initialized engine and exposes the ``wallet`` command line.
"""
