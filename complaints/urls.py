from django.urls import path

from . import views

urlpatterns = [

    path('auth/register', views.register, name='register'),
    path('auth/login',    views.login,    name='login'),
    path('auth/logout',   views.logout,   name='logout'),
    path('auth/me',       views.me,       name='me'),

    path('complaints',            views.complaints,   name='complaints'),
    path('complaints/admins',     views.admin_users,  name='admin_users'),
    path('complaints/categories', views.categories,   name='categories'),
    path('complaints/stats',      views.stats,        name='stats'),
    path('complaints/stats/export.xlsx', views.export_stats_excel, name='export_stats_excel'),
    path('complaints/stats/export.pdf',  views.export_stats_pdf,   name='export_stats_pdf'),

    path('complaints/<int:complaint_id>',              views.complaint_detail, name='complaint_detail'),
    path('complaints/<int:complaint_id>/status',       views.update_status,    name='update_status'),
    path('complaints/<int:complaint_id>/priority',     views.update_priority,  name='update_priority'),
    path('complaints/<int:complaint_id>/assign',       views.assign,           name='assign'),
    path('complaints/<int:complaint_id>/reject',       views.reject,           name='reject'),
    path('complaints/<int:complaint_id>/request-info', views.request_info,     name='request_info'),
    path('complaints/<int:complaint_id>/submit-info',  views.submit_info,      name='submit_info'),
    path('complaints/<int:complaint_id>/reply',        views.reply,            name='reply'),
    path('complaints/<int:complaint_id>/feedback',     views.feedback,         name='feedback'),

    path('notifications',
         views.notifications_list,
         name='notifications_list'),
    path('notifications/<int:notification_id>/read',
         views.mark_notification_read,
         name='mark_notification_read'),
    path('notifications/read-all',
         views.mark_all_read,
         name='mark_all_read'),
]
