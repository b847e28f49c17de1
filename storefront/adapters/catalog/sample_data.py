"""Sample products used when no external catalog is configured."""

from storefront.schemas.product import Product, Review

SAMPLE_PRODUCTS: list[Product] = [
    Product(
        slug="mower",
        name="Electric Lawn Mower",
        description="Cordless 40V mower with a 16-inch deck and mulching kit.",
        regular_price=349.99,
        manufacturer="GreenCut",
        reviews=[
            Review(reviewer="Dana", stars=5, review="Quiet, light and the battery lasts for my whole yard.", date="2024-04-02"),
            Review(reviewer="Mo", stars=4, review="Cuts well but the grass bag fills up fast.", date="2024-05-11"),
            Review(reviewer="Priya", stars=2, review="Struggles with wet grass and tall weeds.", date="2024-06-20"),
        ],
    ),
    Product(
        slug="ecobottle",
        name="Insulated Water Bottle",
        description="Double-wall stainless steel bottle that keeps drinks cold for 24 hours.",
        regular_price=29.99,
        sale_price=24.99,
        manufacturer="EcoSip",
        reviews=[
            Review(reviewer="Lee", stars=5, review="Ice still there after a full day at the beach.", date="2024-03-14"),
            Review(reviewer="Sam", stars=4, review="Lid seals well, a bit heavy when full.", date="2024-03-30"),
            Review(reviewer="Ari", stars=3, review="Paint chipped after a few weeks.", date="2024-04-18"),
        ],
    ),
    Product(
        slug="trailpack",
        name="Trail Backpack 30L",
        description="Lightweight hiking pack with rain cover and hydration sleeve.",
        regular_price=119.0,
        manufacturer="Summit",
        reviews=[
            Review(reviewer="Jo", stars=5, review="Plenty of pockets and the hip belt carries weight nicely.", date="2024-02-08"),
            Review(reviewer="Kit", stars=4, review="Comfortable on long hikes, zippers feel cheap.", date="2024-02-22"),
            Review(reviewer="Ren", stars=5, review="Rain cover saved my gear in a storm.", date="2024-05-03"),
        ],
    ),
    Product(
        slug="headlamp",
        name="Rechargeable Headlamp",
        description="400-lumen USB-C headlamp with red light mode.",
        regular_price=39.5,
        manufacturer="Summit",
        reviews=[
            Review(reviewer="Val", stars=4, review="Bright and comfortable, strap slips on a bald head.", date="2024-01-17"),
            Review(reviewer="Noor", stars=5, review="Battery lasts several nights of camping.", date="2024-03-09"),
        ],
    ),
]
