"""Application tests for discount administration commands."""

import json

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from commerce.discount.discount import Discount
from commerce.discount.management import ActivateDiscount, DeactivateDiscount, DeleteDiscount, UpdateDiscount
from commerce.errors import DuplicateDiscountCode


class TestCreateDiscount:
    def test_create(self, make_discount):
        discount_id = make_discount(applicable_products=json.dumps(["p1"]), created_by="admin-001")
        discount = current_domain.repository_for(Discount).get(discount_id)
        assert discount.code == "SAVE10"
        assert discount.product_list == ["p1"]
        assert discount.created_by == "admin-001"

    def test_duplicate_code_conflicts(self, make_discount):
        make_discount(code="SAVE10")
        with pytest.raises(DuplicateDiscountCode) as exc:
            make_discount(code="save10")
        assert exc.value.messages == {"code": ["Discount code already exists"]}

    def test_automatic_promotions_need_no_code(self, make_discount):
        make_discount(code=None, name="Spring promotion")
        make_discount(code=None, name="Summer promotion")
        assert len(current_domain.repository_for(Discount).list_all()) == 2

    def test_percentage_over_100_is_rejected(self, make_discount):
        with pytest.raises(ValidationError):
            make_discount(value=150.0)


class TestUpdateDiscount:
    def test_update_keeps_unset_fields(self, make_discount):
        discount_id = make_discount(minimum_purchase_amount=50.0)
        current_domain.process(UpdateDiscount(discount_id=discount_id, value=20.0), asynchronous=False)

        discount = current_domain.repository_for(Discount).get(discount_id)
        assert discount.value == 20.0
        assert discount.minimum_purchase_amount == 50.0

    def test_update_targeting(self, make_discount):
        discount_id = make_discount()
        current_domain.process(
            UpdateDiscount(discount_id=discount_id, is_public=False, targeted_user_ids=json.dumps(["cust-vip"])),
            asynchronous=False,
        )

        discount = current_domain.repository_for(Discount).get(discount_id)
        assert discount.is_public is False
        assert discount.targeted_user_id_list == ["cust-vip"]


class TestActivation:
    def test_deactivate_and_activate(self, make_discount):
        discount_id = make_discount()
        repo = current_domain.repository_for(Discount)

        current_domain.process(DeactivateDiscount(discount_id=discount_id), asynchronous=False)
        assert repo.get(discount_id).is_active is False

        current_domain.process(ActivateDiscount(discount_id=discount_id), asynchronous=False)
        assert repo.get(discount_id).is_active is True

    def test_list_active_only(self, make_discount):
        make_discount(code="LIVE")
        make_discount(code="PAUSED", is_active=False)
        codes = [d.code for d in current_domain.repository_for(Discount).list_all(active_only=True)]
        assert codes == ["LIVE"]


class TestDeleteDiscount:
    def test_delete(self, make_discount):
        discount_id = make_discount()
        current_domain.process(DeleteDiscount(discount_id=discount_id), asynchronous=False)

        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(Discount).get(discount_id)

    def test_code_is_free_again(self, make_discount):
        discount_id = make_discount(code="SAVE10")
        current_domain.process(DeleteDiscount(discount_id=discount_id), asynchronous=False)

        make_discount(code="SAVE10")
        assert [d.code for d in current_domain.repository_for(Discount).list_all()] == ["SAVE10"]
