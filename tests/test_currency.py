"""
Test suite for currency module

Tests Money rounding, arithmetic and comparisons. All monetary calculations
must use Decimal precision.
"""

import pytest
from decimal import Decimal

from rental_billing.currency import Money, Currency


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        """Test Money object creation and rounding to currency precision"""
        money = Money(Decimal('1500.50'), Currency.QAR)
        assert money.amount == Decimal('1500.50')
        assert money.currency == Currency.QAR

        assert Money(Decimal('100.555'), Currency.QAR).amount == Decimal('100.56')
        assert Money(Decimal('100.7'), Currency.JPY).amount == Decimal('101')
        assert Money(Decimal('1.2345'), Currency.KWD).amount == Decimal('1.235')

        # Non-Decimal input is converted through str
        assert Money(120, Currency.QAR).amount == Decimal('120.00')

    def test_money_arithmetic(self):
        """Test Money arithmetic operations"""
        rent = Money(Decimal('1500.00'), Currency.QAR)
        paid = Money(Decimal('500.25'), Currency.QAR)

        assert (rent + paid).amount == Decimal('2000.25')
        assert (rent - paid).amount == Decimal('999.75')
        assert (Money(Decimal('120'), Currency.QAR) * Decimal('40')).amount == Decimal('4800.00')
        assert (Money(Decimal('120'), Currency.QAR) * 3).amount == Decimal('360.00')

    def test_currency_mismatch(self):
        """Operations across currencies are rejected"""
        qar = Money(Decimal('100'), Currency.QAR)
        usd = Money(Decimal('100'), Currency.USD)

        with pytest.raises(ValueError):
            qar + usd
        with pytest.raises(ValueError):
            qar - usd
        with pytest.raises(ValueError):
            qar < usd
        assert qar != usd

    def test_comparisons(self):
        small = Money(Decimal('120'), Currency.QAR)
        large = Money(Decimal('3000'), Currency.QAR)

        assert small < large
        assert large > small
        assert small <= Money(Decimal('120.00'), Currency.QAR)
        assert large >= small
        assert small == Money.of('120', Currency.QAR)
        assert hash(small) == hash(Money.of('120.00', Currency.QAR))

    def test_zero_and_sign(self):
        assert Money.zero(Currency.QAR).is_zero()
        assert not Money.zero(Currency.QAR).is_positive()
        assert Money.of('0.01', Currency.QAR).is_positive()

    def test_formatting(self):
        assert str(Money(Decimal('1500'), Currency.QAR)) == "QAR 1,500.00"
        assert Money(Decimal('1500'), Currency.JPY).to_string() == "JPY 1,500"
