"""Node interaction state: action menus, delete confirmation and picker mode."""
