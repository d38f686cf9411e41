"""Discord role and department sync for the Florida Coast RP community site."""
