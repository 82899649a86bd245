"""BDD tests for checkout: reserving stock."""

from pytest_bdd import scenarios

scenarios("features/checkout_reservation.feature")
