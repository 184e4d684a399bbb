"""Pipeline stages and the orchestrator that sequences them."""
