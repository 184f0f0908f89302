from gachaforge.testing import memory_app  # noqa: F401
