"""K toolchain backend dispatcher."""
