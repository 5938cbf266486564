"""Publishing engine: Spack adapter, stage machine, publisher and batch runner."""
