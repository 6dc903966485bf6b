# Overview: Starter catalog loaded by `flask seed categories` / `flask seed products`.

DEFAULT_CATEGORIES = [
    ("Engine Parts", "Components related to engine operation including pistons, valves, gaskets, and engine blocks"),
    ("Brake System", "Brake pads, rotors, calipers, brake fluid, and other braking components"),
    ("Suspension", "Shocks, struts, springs, and suspension components for vehicle stability"),
    ("Electrical", "Batteries, alternators, starters, wiring, and electrical components"),
    ("Body Parts", "Exterior and interior body components, panels, and trim pieces"),
    ("Filters", "Air filters, oil filters, fuel filters, and cabin air filters"),
    ("Belts & Hoses", "Timing belts, serpentine belts, radiator hoses, and other rubber components"),
    ("Transmission", "Transmission parts, clutches, and drivetrain components"),
    ("Cooling System", "Radiators, water pumps, thermostats, and cooling system components"),
    ("Exhaust System", "Mufflers, catalytic converters, exhaust pipes, and emission control parts"),
]

# (barcode, name, category, price_cents, stock, manufacturer, part_number)
SAMPLE_PRODUCTS = [
    ("1234567890123", "Brake Pads - Front Set", "Brake System", 8999, 25, "Brembo", "BP-FRONT-001"),
    ("2345678901234", "Engine Oil Filter", "Filters", 2499, 50, "Mann Filter", "OF-ENG-002"),
    ("3456789012345", "Spark Plugs Set (4 pieces)", "Engine Parts", 4599, 30, "NGK", "SP-IRD-003"),
    ("4567890123456", "Air Filter", "Filters", 3599, 40, "K&N", "AF-HF-004"),
    ("5678901234567", "Timing Belt", "Belts & Hoses", 6599, 20, "Gates", "TB-TIM-005"),
    ("6789012345678", "Radiator", "Cooling System", 18999, 15, "Mishimoto", "RAD-ALU-006"),
    ("7890123456789", "Shock Absorber - Rear", "Suspension", 12599, 18, "Bilstein", "SA-REAR-007"),
    ("8901234567890", "Headlight Assembly - LED", "Electrical", 29999, 12, "Philips", "HL-LED-008"),
    ("9012345678901", "Exhaust Muffler", "Exhaust System", 15999, 22, "Borla", "EX-MUF-009"),
    ("0123456789012", "Transmission Filter Kit", "Transmission", 7599, 28, "ATP", "TF-KIT-010"),
]
