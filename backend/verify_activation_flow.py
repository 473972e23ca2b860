from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coupon_engine.core.database import Base
from coupon_engine.models import activity, commission, eligibility_policy, profile, subscription  # noqa: F401
from coupon_engine.models.coupon import AffiliateCoupon, CouponTemplate
from coupon_engine.models.product import Product
from coupon_engine.services.activation_store import activate, deactivate, list_for_affiliate, reactivate
from coupon_engine.services.link_composer import compose_link


def main() -> None:
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        db.add(Product(id="P1", name="Shop", landing_page_url="https://shop.test/p1"))
        template = CouponTemplate(code="WELCOME10", name="Welcome", kind="percentage", value=10, product_id="P1")
        db.add(template)
        db.commit()

        result = activate(db, "bob-id", template.id, "bob")
        row = result.activation
        assert result.created
        assert row.custom_code == "BOBWELCOME10", row.custom_code
        link = compose_link("https://shop.test/p1", row.custom_code)
        assert link == "https://shop.test/p1/BOBWELCOME10", link

        again = activate(db, "bob-id", template.id, "bob")
        assert not again.created and again.activation.id == row.id

        for _ in range(3):
            assert not deactivate(db, "bob-id", row.id).is_active
            assert reactivate(db, "bob-id", row.id).is_active

        rows = db.query(AffiliateCoupon).filter(AffiliateCoupon.affiliate_id == "bob-id").all()
        assert len(rows) == 1, len(rows)
        assert [r.custom_code for r in list_for_affiliate(db, "bob-id")] == ["BOBWELCOME10"]
    finally:
        db.close()


if __name__ == "__main__":
    main()
    print("OK")
