# mw_platform/__init__.py
# MoziWatch platform core: catalog, reconciliation and list sync.
