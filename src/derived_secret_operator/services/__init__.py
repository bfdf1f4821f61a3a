"""Domain services for the Derived Secret Operator."""
