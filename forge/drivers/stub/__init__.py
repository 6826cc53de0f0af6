"""In-memory container driver for tests and local development."""

from forge.drivers.stub.driver import StubDriver

__all__ = ["StubDriver"]
