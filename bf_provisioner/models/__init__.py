"""Fleet declaration and provisioning value objects."""
