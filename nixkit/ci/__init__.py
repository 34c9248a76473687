"""Building blocks for CI over Nix flakes: configuration, steps, matrices and pull requests."""