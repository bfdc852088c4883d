"""kube-recycle-bin: capture deleted Kubernetes objects and restore them on demand."""

__version__ = "0.1.0"
