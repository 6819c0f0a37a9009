"""Version-control adapter: git working tree access and branch publishing."""
