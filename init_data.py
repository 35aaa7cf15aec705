from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import (
    Currency,
    GameDownload,
    GameRent,
    GameRepair,
    GameSwap,
    Product,
    User,
    UserRole,
)

app = create_app()

with app.app_context():
    # Currencies; rates are units per NGN
    currencies_data = [
        {"country": "Nigeria", "code": "NGN", "rate": 1},
        {"country": "United States", "code": "USD", "rate": 0.00065},
        {"country": "United Kingdom", "code": "GBP", "rate": 0.00052},
        {"country": "Ghana", "code": "GHS", "rate": 0.0098},
    ]
    for currency_data in currencies_data:
        if not Currency.query.filter_by(code=currency_data["code"]).first():
            db.session.add(Currency(**currency_data))
            print(f"Created currency: {currency_data['code']}")

    # Create admin account (if not exists)
    admin_email = "admin@example.com"
    admin = User.query.filter_by(email=admin_email).first()
    if not admin:
        admin = User(
            email=admin_email,
            username="admin",
            first_name="Site",
            last_name="Admin",
            role=UserRole.ADMIN,
        )
        admin.set_password("admin123")
        db.session.add(admin)
        print(f"Created admin account: {admin_email} / admin123")

    demo_email = "gamer@example.com"
    if not User.query.filter_by(email=demo_email).first():
        gamer = User(
            email=demo_email,
            username="gamer",
            first_name="Ada",
            last_name="Obi",
            phone="08030000000",
            delivery_address="12 Allen Avenue, Ikeja, Lagos",
            role=UserRole.STANDARD,
        )
        gamer.set_password("gamer123")
        db.session.add(gamer)
        print(f"Created demo account: {demo_email} / gamer123")

    products_data = [
        {
            "title": "PlayStation 5 Slim",
            "category": "Consoles",
            "subcategory": "PlayStation",
            "condition": "New",
            "price": 750000,
            "stock_qty": 12,
        },
        {
            "title": "DualSense Wireless Controller",
            "category": "Accessories",
            "subcategory": "Controllers",
            "condition": "New",
            "price": 85000,
            "stock_qty": 40,
        },
        {
            "title": "EA Sports FC 25",
            "category": "Games",
            "subcategory": "Sports",
            "condition": "Used",
            "price": 45000,
            "stock_qty": 25,
        },
    ]
    for product_data in products_data:
        if Product.query.filter_by(title=product_data["title"]).first():
            continue
        slug = product_data["title"].lower().replace(" ", "-")
        product = Product(
            description=f"{product_data['title']} - ships from Lagos",
            image_urls=[
                f"/images/{slug}/slot0.jpg",
                f"/images/{slug}/slot1.jpg",
            ],
            **product_data,
        )
        db.session.add(product)
        print(f"  Created product: {product_data['title']}")

    # Service catalogue, one entry per order collection
    if not GameDownload.query.first():
        db.session.add(GameDownload(
            title="Elden Ring", platform="PS5", install_type="Digital",
            price=35000, home_service=True))
    if not GameRent.query.first():
        db.session.add(GameRent(
            title="God of War Ragnarok", category="Games",
            sub_category="Action", info="Disc rental", rate=2500))
    if not GameSwap.query.first():
        db.session.add(GameSwap(
            title="Spider-Man 2", platform="PS5", condition="Used",
            swap_fee=8000, accepted_titles=["Horizon Forbidden West"]))
    if not GameRepair.query.first():
        db.session.add(GameRepair(
            title="HDMI port replacement", category="Console repair",
            game=None, price=30000))

    db.session.commit()
    print("Data initialization completed!")
