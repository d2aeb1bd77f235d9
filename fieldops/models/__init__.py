from fieldops.models.company import Company
from fieldops.models.user import User
from fieldops.models.customer import Customer
from fieldops.models.job import Job
from fieldops.models.job_activity import JobActivity
from fieldops.models.job_assignee import JobAssignee
from fieldops.models.job_financials import JobFinancials
from fieldops.models.invoice import Invoice, InvoiceLineItem
from fieldops.models.service_catalog import ServiceCatalog, ServiceCatalogItem
from fieldops.models.task import Task
from fieldops.models.xero_connection import XeroConnection
