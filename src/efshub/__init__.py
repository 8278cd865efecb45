"""efshub - asynchronous EFS provisioning for tenant spaces."""

__version__ = "0.1.0"
