from io import BytesIO

import openpyxl
import pytest

from complaints.lifecycle import lifecycle
from complaints.models import Complaint

pytestmark = pytest.mark.django_db


@pytest.fixture
def resolved(complaint, admin_user):
    lifecycle.update_status(admin_user, complaint.pk, Complaint.Status.RESOLVED)
    lifecycle.add_feedback(complaint.submitted_by, complaint.pk, 4)
    return complaint


def test_excel_export(api_for, resolved, superadmin):
    resp = api_for(superadmin).get('/api/complaints/stats/export.xlsx')

    assert resp.status_code == 200
    assert resp['Content-Type'].startswith('application/vnd.openxmlformats')
    assert 'attachment; filename=complaints_' in resp['Content-Disposition']

    wb = openpyxl.load_workbook(BytesIO(resp.content))
    summary = wb['Summary']
    assert summary['A1'].value == 'Complaint Desk Report'
    rows = {summary.cell(row=r, column=1).value: summary.cell(row=r, column=2).value
            for r in range(4, summary.max_row + 1)}
    assert rows['Total Complaints'] == 1
    assert rows['Resolved'] == 1
    assert rows['Average Rating'] == 4
    assert wb['Categories']['A2'].value == 'Infrastructure'


def test_pdf_export(api_for, resolved, superadmin):
    resp = api_for(superadmin).get('/api/complaints/stats/export.pdf')
    assert resp.status_code == 200
    assert resp['Content-Type'] == 'application/pdf'
    assert resp.content.startswith(b'%PDF')


def test_exports_are_superadmin_only(api_for, admin_user):
    api = api_for(admin_user)
    assert api.get('/api/complaints/stats/export.xlsx').status_code == 403
    assert api.get('/api/complaints/stats/export.pdf').status_code == 403
