# zera_oracle/systems/__init__.py
"""
Long-lived singletons: admission control, the live-update broadcaster and
the pegger. Each exposes init_app(app), and the threaded ones start()/stop().
"""
