"""Storage and serialization for move-tracker."""
