from db.extensions import db
from models.commission import Commission


def test_assign_pending_command(app, make):
    make.order()

    result = app.test_cli_runner().invoke(args=['dispatch', 'assign-pending'])

    assert result.exit_code == 0
    assert 'Assigned: 0  Without courier: 1' in result.output


def test_check_waiting_timeouts_command(app):
    result = app.test_cli_runner().invoke(args=['dispatch', 'check-waiting-timeouts'])

    assert result.exit_code == 0
    assert 'Cancelled: 0  Fees updated: 0' in result.output


def test_check_pending_payments_command(app):
    result = app.test_cli_runner().invoke(args=['payments', 'check-pending', '--timeout', '10'])

    assert result.exit_code == 0
    assert 'Checked: 0' in result.output


def test_settle_unsettled_command(app, make):
    delivery = make.delivery('delivered', courier=make.courier())
    delivery.order.status = 'delivered'
    db.session.commit()

    result = app.test_cli_runner().invoke(args=['dispatch', 'settle-unsettled'])

    assert result.exit_code == 0
    assert 'Settled: 1  Failed: 0' in result.output
    assert Commission.query.filter_by(order_id=delivery.order_id).count() == 1
