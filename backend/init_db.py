"""
Database initialization script
Run this to create tables and seed a demo MLM hierarchy
"""
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import engine, Base, SessionLocal
from app.models.vendor import Vendor
from app.models.client import Client, ClientStatus
from app.models.commission import CommissionRecord  # noqa: F401 ensure table created
from app.models.payment import PaymentSchedule  # noqa: F401 ensure table created


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed a demo upline (SVP > Manager > ETL > ETT > new vendor) and a few installations"""
    db = SessionLocal()

    try:
        print("\nSeeding demo hierarchy...")

        if db.query(Vendor).filter(Vendor.code_vendeur == "FR00000001").first():
            print("✓ Demo data already present")
            return

        parent = None
        hierarchy = [
            ("FR00000001", "Sophie", "Martin", "SVP"),
            ("FR00000002", "Karim", "Benali", "Manager"),
            ("FR00000003", "Julie", "Moreau", "ETL"),
            ("FR00000004", "Thomas", "Petit", "ETT"),
            ("FR00000005", "Nina", "Garcia", None),
        ]
        for niveau, (code, prenom, nom, position) in enumerate(hierarchy, start=1):
            vendor = Vendor(
                code_vendeur=code,
                prenom=prenom,
                nom=nom,
                position=position,
                parent_id=parent.id if parent else None,
                niveau=niveau,
            )
            db.add(vendor)
            db.flush()
            parent = vendor
            print(f"✓ Vendor {code} ({position or 'CQ'}) created")

        today = date.today()
        products = ["Freebox Pop"] * 5 + ["Freebox Ultra", "Forfait 5G"]
        for i, product in enumerate(products, start=1):
            db.add(Client(
                vendor_id=parent.id,
                prenom=f"Client{i}",
                nom="Demo",
                produit=product,
                status=ClientStatus.INSTALLATION.value,
                acquisition_date=today.replace(day=1),
                installation_date=today.replace(day=min(i, 28)),
            ))
        print(f"✓ {len(products)} installed clients created for {parent.code_vendeur}")

        db.commit()
        print("\n✓ Database initialization complete!")

    except Exception as e:
        print(f"✗ Error seeding data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
    seed_data()
