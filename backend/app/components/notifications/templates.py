"""HTML email templates for assignment notifications."""

from html import escape

from ...platform.brand import BRAND_NAME, BRAND_PRODUCT_NAME


def _layout(heading: str, body_html: str, button_label: str, button_link: str, footer: str) -> str:
    return f"""\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0;padding:0;background-color:#f4f4f7;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color:#f4f4f7;padding:40px 20px;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:8px;overflow:hidden;">
          <tr>
            <td style="background-color:#0f766e;padding:32px 40px;text-align:center;">
              <h1 style="margin:0;color:#ffffff;font-size:28px;font-weight:700;">{BRAND_NAME}</h1>
              <p style="margin:4px 0 0;color:#ccfbf1;font-size:14px;">{BRAND_PRODUCT_NAME}</p>
            </td>
          </tr>
          <tr>
            <td style="padding:40px;">
              <h2 style="margin:0 0 16px;color:#1f2937;font-size:22px;">{heading}</h2>
              {body_html}
              <table cellpadding="0" cellspacing="0" style="margin:0 auto 24px;">
                <tr>
                  <td style="background-color:#0f766e;border-radius:6px;text-align:center;">
                    <a href="{button_link}"
                       style="display:inline-block;padding:14px 32px;color:#ffffff;font-size:16px;font-weight:600;text-decoration:none;">
                      {button_label}
                    </a>
                  </td>
                </tr>
              </table>
              <hr style="border:none;border-top:1px solid #e5e7eb;margin:24px 0;">
              <p style="margin:0;color:#9ca3af;font-size:13px;text-align:center;">{footer}</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def assignment_invitation_html(
    developer_name: str,
    project_title: str,
    invitation_link: str,
    deadline_text: str | None = None,
    client_message: str | None = None,
) -> str:
    paragraphs = [
        f'<p style="margin:0 0 16px;color:#4b5563;font-size:16px;line-height:1.6;">'
        f"Hi {escape(developer_name)}, you have been matched with the project "
        f"<strong>{escape(project_title)}</strong>.</p>"
    ]
    if client_message:
        paragraphs.append(
            '<p style="margin:0 0 16px;padding:12px 16px;background-color:#f9fafb;border-left:3px solid #0f766e;'
            f'color:#374151;font-size:15px;line-height:1.6;">{escape(client_message)}</p>'
        )
    if deadline_text:
        paragraphs.append(
            f'<p style="margin:0 0 24px;color:#4b5563;font-size:16px;line-height:1.6;">'
            f"The first developer to accept gets the project. This offer closes {escape(deadline_text)}.</p>"
        )
    return _layout(
        heading="New project for you",
        body_html="\n              ".join(paragraphs),
        button_label="Review the project",
        button_link=invitation_link,
        footer=f"You receive these emails because your {BRAND_NAME} profile is set to available.",
    )


def assignment_accepted_html(client_name: str, developer_name: str, project_title: str, project_link: str) -> str:
    body = (
        f'<p style="margin:0 0 24px;color:#4b5563;font-size:16px;line-height:1.6;">'
        f"Hi {escape(client_name)}, <strong>{escape(developer_name)}</strong> accepted "
        f"<strong>{escape(project_title)}</strong>. Their contact details are now visible to you.</p>"
    )
    return _layout(
        heading="Your project has a developer",
        body_html=body,
        button_label="Open project",
        button_link=project_link,
        footer=f"Sent by {BRAND_NAME}.",
    )
