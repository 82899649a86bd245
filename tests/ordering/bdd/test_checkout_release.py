"""BDD tests for checkout: returning held stock."""

from pytest_bdd import scenarios

scenarios("features/checkout_release.feature")
