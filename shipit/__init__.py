"""shipit: release automation for tag-driven CI pipelines."""

__version__ = "0.3.0"
