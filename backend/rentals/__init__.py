"""Property management backend with subscription-gated resource access."""
