"""SkyLore: regional folklore star groupings overlaid on a celestial map."""
