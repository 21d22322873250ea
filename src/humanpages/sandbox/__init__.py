"""In-memory reference backend for local development and end-to-end tests.

Enforces the job, stream, listing and trust-tier rules against a simulated
chain. Not a production backend: nothing is persisted.
"""

from humanpages.sandbox.app import Sandbox, create_sandbox_app
from humanpages.sandbox.store import FakeClock, SandboxStore

__all__ = ["FakeClock", "Sandbox", "SandboxStore", "create_sandbox_app"]
