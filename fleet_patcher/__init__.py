"""Fleet Patcher: snapshot-guarded patch maintenance windows for virtualized servers."""

__version__ = "1.0.0"
