"""Result export."""
